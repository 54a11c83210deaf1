import asyncio
import logging
import typing

from kubernetes_asyncio import client, config

logger = logging.getLogger(__name__)

# Global lock to prevent race conditions during config loading
_CONFIG_LOCK = asyncio.Lock()
_LOADED_CONTEXT: typing.Optional[str] = None
_CONFIG_LOADED = False


async def ensure_k8s_config(context: typing.Optional[str] = None) -> bool:
    """
    Ensures that the Kubernetes configuration is loaded once per context.

    When a kubeconfig context is requested the local kubeconfig is used;
    otherwise in-cluster configuration is tried first.

    Returns:
        bool: True if config was loaded successfully (or was already loaded), False otherwise.
    """
    global _CONFIG_LOADED, _LOADED_CONTEXT

    if _CONFIG_LOADED and _LOADED_CONTEXT == context:
        return True

    async with _CONFIG_LOCK:
        if _CONFIG_LOADED and _LOADED_CONTEXT == context:
            return True

        if context is None:
            try:
                logger.debug("Attempting to load in-cluster Kubernetes config...")
                config.load_incluster_config()
                logger.info("Loaded in-cluster Kubernetes configuration.")
                _CONFIG_LOADED = True
                _LOADED_CONTEXT = None
                return True
            except config.ConfigException:
                logger.debug("In-cluster config not found.")

        try:
            logger.debug("Attempting to load local kubeconfig (context=%s)...", context)
            await config.load_kube_config(context=context)
            logger.info("Loaded Kubernetes configuration from kubeconfig file (context=%s).", context or "current")
            _CONFIG_LOADED = True
            _LOADED_CONTEXT = context
            return True
        except config.ConfigException as e:
            logger.warning("Could not load kubeconfig: %s", e)

    logger.warning("Failed to load any Kubernetes configuration.")
    return False


async def get_core_v1_api(context: typing.Optional[str] = None) -> typing.Optional[client.CoreV1Api]:
    """
    Returns a configured CoreV1Api instance.
    """
    if await ensure_k8s_config(context):
        return client.CoreV1Api()
    return None

