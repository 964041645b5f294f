import os
import boto3
import logging
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from .secret_manager_service import access_secret_version
from utils.payment_utils import format_currency, first_name

# Set up a module-level logger
log = logging.getLogger(__name__)

def is_email_configured() -> bool:
    """Reminders need a verified SES sender address."""
    sender_email = os.environ.get("SENDER_EMAIL", "")
    return bool(sender_email) and "YOUR_" not in sender_email

def _build_message(sender_email: str, recipient_email: str, reply_to: str | None,
                   subject: str, text_body: str, html_body: str) -> MIMEMultipart:
    msg = MIMEMultipart('alternative')
    msg['Subject'] = subject
    msg['From'] = sender_email
    msg['To'] = recipient_email
    if reply_to:
        msg['Reply-To'] = reply_to
    msg.attach(MIMEText(text_body, 'plain'))
    msg.attach(MIMEText(html_body, 'html'))
    return msg

def send_reminder_email(tenant: dict, owner: dict, amount_due: float, template_env,
                        due_description: str = "this month") -> bool:
    """
    Sends a rent reminder for `amount_due` to the tenant, on behalf of the owner.
    Replies go to the owner. Returns True if successful, False otherwise.
    """
    recipient_email = tenant.get('email')
    tenant_name = tenant.get('name', 'Tenant')
    owner_name = owner.get('name', 'Your landlord')

    if not recipient_email:
        log.error(f"No email for tenant {tenant.get('id')}. Skipping reminder.")
        return False

    sender_email = os.environ.get("SENDER_EMAIL")
    if not sender_email:
        log.error("SENDER_EMAIL environment variable not set.")
        return False

    # --- Andon Cord / Safety Net ---
    is_testing = os.environ.get("TESTING_MODE", "true").lower() == "true"
    if is_testing:
        original_email = recipient_email
        recipient_email = os.environ.get("TESTING_RECIPIENT_EMAIL", sender_email)
        log.warning(f"TESTING_MODE is active. Redirecting reminder from {original_email} to {recipient_email}")

    context = {
        'tenant_name': first_name(tenant_name) or tenant_name,
        'owner_name': owner_name,
        'owner_email': owner.get('email'),
        'owner_mobile': owner.get('mobileNumber'),
        'amount_due': amount_due,
        'due_description': due_description,
        'room': tenant.get('room'),
        'year': date.today().year,
    }
    subject = f"Payment reminder from {owner_name}"
    html_body = template_env.get_template('reminder_email.html').render(**context)
    # Plain text version as a fallback
    text_body = (
        f"Hi {context['tenant_name']},\n\n"
        f"This is a friendly reminder from {owner_name} that {format_currency(amount_due)} "
        f"is outstanding {due_description}.\n\n"
        f"If you have already paid, please notify {owner_name} from your dashboard so the payment can be verified.\n\n"
        f"Thank you,\n{owner_name}\n\n"
        f"© {context['year']}. This is an automated message."
    )

    aws_access_key_id = access_secret_version("AWS_ACCESS_KEY_ID")
    aws_secret_access_key = access_secret_version("AWS_SECRET_ACCESS_KEY")

    if not aws_access_key_id or not aws_secret_access_key:
        log.error("Failed to retrieve AWS credentials from Secret Manager.")
        return False

    try:
        ses_client = boto3.client(
            'ses',
            region_name=os.environ.get("SES_REGION", "us-east-1"),
            aws_access_key_id=aws_access_key_id,
            aws_secret_access_key=aws_secret_access_key
        )
        msg = _build_message(sender_email, recipient_email, owner.get('email'), subject, text_body, html_body)
        ses_client.send_raw_email(
            Source=sender_email,
            Destinations=[recipient_email],
            RawMessage={'Data': msg.as_string()}
        )
        log.info(f"Successfully sent reminder to {recipient_email} for tenant {tenant.get('id')}")
        return True
    except Exception as e:
        log.error(f"An unexpected error occurred while sending reminder: {e}")
        return False
