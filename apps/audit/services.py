import json
import logging

from django.core.serializers.json import DjangoJSONEncoder

from apps.audit.models import AuditLog

logger = logging.getLogger(__name__)


def _json_safe(payload):
    # Decimals and UUIDs in payloads are stored as strings.
    return json.loads(json.dumps(payload or {}, cls=DjangoJSONEncoder))


def record_audit(*, actor, action, entity_type, entity_id, payload=None):
    if actor is not None and not getattr(actor, "is_authenticated", False):
        actor = None
    entry = AuditLog.objects.create(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        payload=_json_safe(payload),
    )
    logger.info("audit %s %s:%s actor=%s", action, entity_type, entity_id, getattr(actor, "pk", None))
    return entry
