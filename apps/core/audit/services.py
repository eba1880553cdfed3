import logging

from apps.core.audit.models import AuditLog

logger = logging.getLogger(__name__)


def log_audit_event(action, actor='', target=None, details=''):
    try:
        target_model = ''
        target_id = ''

        if target is not None:
            target_model = target.__class__.__name__
            target_id = str(getattr(target, 'pk', ''))

        return AuditLog.objects.create(
            action=action,
            actor=(actor or '')[:150],
            target_model=target_model,
            target_id=target_id,
            details=details,
        )
    except Exception:
        # Audit failures must never break business actions.
        logger.exception('Could not write audit event %s', action)
        return None
