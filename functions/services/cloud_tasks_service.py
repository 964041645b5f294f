import os
import json
import logging
from google.cloud import tasks_v2

# Set up a module-level logger
log = logging.getLogger(__name__)

# Cloud Tasks Constants
LOCATION = os.environ.get('CLOUD_TASKS_LOCATION', 'us-central1')
QUEUE = os.environ.get('CLOUD_TASKS_QUEUE', 'reminder-queue')
# Service account the tasks authenticate as when calling the private worker function.
INVOKER_SERVICE_ACCOUNT = os.environ.get('CLOUD_TASKS_SERVICE_ACCOUNT')

def _worker_url(project: str) -> str:
    base_url = os.environ.get('CLOUD_FUNCTION_BASE_URL', f"https://{LOCATION}-{project}.cloudfunctions.net")
    return f"{base_url}/send_reminder_worker"

def enqueue_reminder_tasks(reminders: list) -> int:
    """
    Enqueues one Cloud Task per reminder; each task calls send_reminder_worker.
    Returns the number of tasks created.
    """
    project = os.environ.get('GCLOUD_PROJECT')
    if not project:
        log.error("GCLOUD_PROJECT not set; cannot enqueue reminder tasks.")
        return 0

    tasks_client = tasks_v2.CloudTasksClient()
    parent = tasks_client.queue_path(project, LOCATION, QUEUE)
    url = _worker_url(project)
    if not INVOKER_SERVICE_ACCOUNT:
        log.warning("CLOUD_TASKS_SERVICE_ACCOUNT not set; reminder tasks will call the worker without an OIDC token.")

    created = 0
    for reminder in reminders:
        payload = json.dumps(reminder)

        task = {
            "http_request": {
                "http_method": tasks_v2.HttpMethod.POST,
                "url": url,
                "headers": {"Content-type": "application/json"},
                "body": payload.encode(),
            }
        }
        if INVOKER_SERVICE_ACCOUNT:
            task["http_request"]["oidc_token"] = {
                "service_account_email": INVOKER_SERVICE_ACCOUNT,
                "audience": url,
            }

        try:
            response = tasks_client.create_task(parent=parent, task=task)
            created += 1
            log.info(f"Created task {response.name} for tenant {reminder['tenantId']}")
        except Exception as e:
            log.error(f"Error creating task for tenant {reminder['tenantId']}: {e}")
    return created
