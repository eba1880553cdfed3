import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import ProtectedError

from apps.finance.accounts.models import GLHead

logger = logging.getLogger(__name__)


def create_gl_head(*, name, type, code='', parent=None, description=''):
    head = GLHead(
        name=name,
        type=type,
        code=code or '',
        parent=parent,
        description=description or '',
    )
    head.full_clean()
    head.save()
    logger.info('Created GL head %s (%s)', head.name, head.type)
    return head


@transaction.atomic
def delete_gl_head(head):
    if head.children.exists():
        raise ValidationError('GL head has child heads. Delete or move them first.')

    try:
        head.delete()
    except ProtectedError as exc:
        raise ValidationError('GL head is referenced by ledger postings and cannot be deleted.') from exc
    logger.info('Deleted GL head %s', head.name)


def build_gl_head_tree(heads=None, head_type=None):
    """Nest GL heads under their parents.

    Each node is ``{'head': GLHead, 'children': [...]}``. Heads whose parent is
    missing from ``heads`` become roots, so a filtered list still renders.
    """
    if heads is None:
        heads = GLHead.objects.all()
    if head_type:
        heads = [head for head in heads if head.type == head_type]

    heads = sorted(heads, key=lambda head: (head.name.lower(), head.pk))
    nodes = {head.pk: {'head': head, 'children': []} for head in heads}

    roots = []
    for head in heads:
        node = nodes[head.pk]
        parent_node = nodes.get(head.parent_id)
        if parent_node is None:
            roots.append(node)
        else:
            parent_node['children'].append(node)
    return roots
