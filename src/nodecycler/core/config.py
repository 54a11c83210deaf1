# src/nodecycler/core/config.py

import logging
import os
import re
import shlex
import subprocess
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from a .env file located in the project root
dotenv_path = os.path.join(os.path.dirname(__file__), "..", "..", "..", ".env")
load_dotenv(dotenv_path=dotenv_path)

# Kubernetes label keys: optional prefix, then a name of at most 63 characters.
_LABEL_KEY_RE = re.compile(r"^([a-z0-9]([-a-z0-9.]*[a-z0-9])?/)?[A-Za-z0-9]([-A-Za-z0-9_.]{0,61}[A-Za-z0-9])?$")


def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() in ("true", "1", "t", "y", "yes")


def _env_optional_float(key: str):
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return None
    return float(value)


class Config:
    """
    Handles the application's configuration by loading values from environment variables.
    """

    def __init__(self):
        # --- Compute Engine credentials ---
        self.GCP_ACCESS_TOKEN = self._get_secret("GCP_ACCESS_TOKEN")
        # Prints a fresh token, e.g. "gcloud auth print-access-token". Takes precedence when set.
        self.GCP_ACCESS_TOKEN_COMMAND = os.getenv("GCP_ACCESS_TOKEN_COMMAND")

        # --- Retry policy ---
        self.RETRY_MAX_ATTEMPTS = int(os.getenv("RETRY_MAX_ATTEMPTS", "12"))
        self.RETRY_DELAY_SECONDS = float(os.getenv("RETRY_DELAY_SECONDS", "8"))

        # --- Convergence polling ---
        self.POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "32"))
        # Unset means wait forever.
        self.POLL_DEADLINE_SECONDS = _env_optional_float("POLL_DEADLINE_SECONDS")

        # --- Draining ---
        self.DRAIN_TIMEOUT_SECONDS = int(os.getenv("DRAIN_TIMEOUT_SECONDS", "300"))
        self.DRAIN_POLL_SECONDS = float(os.getenv("DRAIN_POLL_SECONDS", "5"))

    @staticmethod
    def _get_secret(key: str, default: str = None) -> str:
        """
        Retrieves a secret from a file (Docker secret/volume) or falls back to environment variable.

        Raises:
            PermissionError: If the secret file exists but cannot be read due to permissions.
            IOError: If the secret file exists but cannot be read due to I/O errors.
        """
        secret_file = f"/etc/nodecycler/secrets/{key}"
        if os.path.exists(secret_file):
            try:
                with open(secret_file, "r") as f:
                    value = f.read().strip()
                    logging.getLogger(__name__).debug(f"Loaded secret '{key}' from {secret_file}")
                    return value
            except PermissionError as e:
                raise PermissionError(
                    f"Secret file '{secret_file}' exists but cannot be read due to permission denied. "
                    f"Please check file permissions or run with appropriate privileges."
                ) from e
            except (IOError, OSError) as e:
                raise IOError(
                    f"Secret file '{secret_file}' exists but cannot be read: {e}. "
                    f"Please check the file integrity and system resources."
                ) from e
        return os.getenv(key, default)

    def read_access_token(self) -> Optional[str]:
        """
        Reads a current Compute Engine access token, either from the output of
        GCP_ACCESS_TOKEN_COMMAND or, without a command, from the secret file or
        the environment. Called again whenever the API rejects the token.

        Raises:
            subprocess.CalledProcessError: If the token command fails.
        """
        if self.GCP_ACCESS_TOKEN_COMMAND:
            result = subprocess.run(
                shlex.split(self.GCP_ACCESS_TOKEN_COMMAND), capture_output=True, text=True, check=True, timeout=60
            )
            return result.stdout.strip() or None
        return self._get_secret("GCP_ACCESS_TOKEN")

    def has_access_token_source(self) -> bool:
        return bool(self.GCP_ACCESS_TOKEN or self.GCP_ACCESS_TOKEN_COMMAND)

    # --- Logging variables ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # --- Target cluster ---
    KUBE_CONTEXT = os.getenv("KUBE_CONTEXT")
    GCP_PROJECT = os.getenv("GCP_PROJECT")

    # --- Compute Engine API ---
    COMPUTE_API_URL = os.getenv("COMPUTE_API_URL", "https://compute.googleapis.com/compute/v1")
    COMPUTE_VERIFY_CERTS = _env_bool("COMPUTE_VERIFY_CERTS", "True")
    DELETE_INSTANCES_BATCH_LIMIT = int(os.getenv("DELETE_INSTANCES_BATCH_LIMIT", "100"))

    # --- Node labels ---
    NODE_ROLE_LABEL = os.getenv("NODE_ROLE_LABEL", "role")
    RETIRING_LABEL = os.getenv("RETIRING_LABEL", "retiring")

    # --- HTTP defaults ---
    DEFAULT_TIMEOUT_CONNECT = float(os.getenv("DEFAULT_TIMEOUT_CONNECT", "10"))
    DEFAULT_TIMEOUT_READ = float(os.getenv("DEFAULT_TIMEOUT_READ", "30"))
    USER_AGENT = os.getenv("USER_AGENT", "nodecycler")

    def validate_instance(self):
        if self.RETRY_MAX_ATTEMPTS < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be at least 1.")
        if self.RETRY_DELAY_SECONDS < 0:
            raise ValueError("RETRY_DELAY_SECONDS must not be negative.")
        if self.POLL_INTERVAL_SECONDS < 0:
            raise ValueError("POLL_INTERVAL_SECONDS must not be negative.")
        if self.POLL_DEADLINE_SECONDS is not None and self.POLL_DEADLINE_SECONDS <= 0:
            raise ValueError("POLL_DEADLINE_SECONDS must be positive when set.")
        if self.DRAIN_TIMEOUT_SECONDS <= 0:
            raise ValueError("DRAIN_TIMEOUT_SECONDS must be positive.")
        if not 1 <= self.DELETE_INSTANCES_BATCH_LIMIT <= 1000:
            raise ValueError("DELETE_INSTANCES_BATCH_LIMIT must be between 1 and 1000.")
        for key in (self.NODE_ROLE_LABEL, self.RETIRING_LABEL):
            if not _LABEL_KEY_RE.match(key):
                raise ValueError(f"'{key}' is not a valid Kubernetes label key.")
        if self.NODE_ROLE_LABEL == self.RETIRING_LABEL:
            raise ValueError("NODE_ROLE_LABEL and RETIRING_LABEL must differ.")
        if not self.has_access_token_source():
            logging.warning("Neither GCP_ACCESS_TOKEN nor GCP_ACCESS_TOKEN_COMMAND is set.")


# Instantiate the config to be imported by other modules
config = Config()
config.validate_instance()
