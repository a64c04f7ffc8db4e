# civicfix/events.py
import logging
from datetime import datetime, timezone

import requests
from flask import current_app

logger = logging.getLogger(__name__)

ISSUE_CREATED = 'issue.created'
ISSUE_UPDATED = 'issue.updated'
ISSUE_ASSIGNED = 'issue.assigned'
ISSUE_COMPLETED = 'issue.completed'
PAYMENT_COMPLETED = 'payment.completed'
USER_REGISTERED = 'user.registered'


def publish_event(topic, data):
    """POSTs a domain event to the configured webhook.

    Delivery is best effort: without ``EVENTS_WEBHOOK_URL`` nothing is sent,
    and a failed request is logged and dropped. Returns the HTTP status code
    on success, else None.
    """
    url = current_app.config.get('EVENTS_WEBHOOK_URL')
    if not url:
        logger.debug("No events webhook configured, dropping %s", topic)
        return None

    payload = {
        'type': topic,
        'data': data,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    }

    try:
        response = requests.post(
            url,
            json=payload,
            headers={"Content-Type": "application/json"},
            timeout=current_app.config.get('EVENTS_TIMEOUT', 3),
        )
        response.raise_for_status()
        logger.debug("Published %s (%s)", topic, response.status_code)
        return response.status_code
    except requests.exceptions.RequestException as e:
        logger.warning("Could not publish %s: %s", topic, e)
        return None
