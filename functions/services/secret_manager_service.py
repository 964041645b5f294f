import os
import logging
from google.cloud import secretmanager
from google.api_core.exceptions import NotFound, PermissionDenied

# Set up a module-level logger
log = logging.getLogger(__name__)

_secret_client = None

def _get_client() -> secretmanager.SecretManagerServiceClient:
    """Creates the Secret Manager client on first use, so importing this module needs no credentials."""
    global _secret_client
    if _secret_client is None:
        _secret_client = secretmanager.SecretManagerServiceClient()
    return _secret_client

def access_secret_version(secret_id, version_id="latest"):
    """Access the payload for the given secret version if one exists.

    The version can be a version number or the string "latest".
    Returns None when the secret cannot be read.
    """
    project_id = os.environ.get('GCLOUD_PROJECT') # Firebase automatically sets this
    if not project_id:
        log.error(f"GCLOUD_PROJECT not set; cannot read secret '{secret_id}'.")
        return None

    try:
        name = f"projects/{project_id}/secrets/{secret_id}/versions/{version_id}"
        response = _get_client().access_secret_version(request={"name": name})
        return response.payload.data.decode("UTF-8").strip()
    except PermissionDenied as e:
        log.error(f"Permission denied when accessing secret '{secret_id}': {e}")
        log.error(f"Please ensure the service account has the 'Secret Manager Secret Accessor' role for secret '{secret_id}'.")
        return None
    except NotFound:
        log.error(f"Secret '{secret_id}' does not exist in project {project_id}.")
        return None
    except Exception as e:
        log.error(f"Unexpected error accessing secret '{secret_id}': {e}")
        return None
