"""Invoice and quote status machine.

Two layers:

1. A static table of which user actions are legal in which status
   (INVOICE_ACTIONS / QUOTE_ACTIONS). It is evaluated against the
   *effective* status, i.e. including the derived "late" and "expired"
   states, which depend on an explicit `today`.
2. The django-fsm transitions on the models (send, cancel, mark_accepted,
   ...), which do the actual state change, number allocation and logging.

`edit` and `add_payment` are gated here but do not change the status;
payment completion is handled by ledger.services.settlement.
"""

import logging

from django.db import models, transaction
from django_fsm import can_proceed

from core.errors import IllegalTransition
from documents.models import Invoice, Quote

logger = logging.getLogger(__name__)


class Action(models.TextChoices):
    EDIT = "edit", "Edit"
    ADD_PAYMENT = "add_payment", "Add payment"
    SEND = "send", "Send"
    CANCEL = "cancel", "Cancel"
    MARK_ACCEPTED = "mark_accepted", "Mark accepted"
    MARK_REJECTED = "mark_rejected", "Mark rejected"


NO_ACTIONS = frozenset()

INVOICE_ACTIONS = {
    Invoice.Status.DRAFT: frozenset({Action.EDIT, Action.ADD_PAYMENT, Action.SEND, Action.CANCEL}),
    Invoice.Status.SENT: frozenset({Action.ADD_PAYMENT, Action.CANCEL}),
    Invoice.LATE: frozenset({Action.ADD_PAYMENT, Action.CANCEL}),
    Invoice.Status.PAID: NO_ACTIONS,
    Invoice.Status.CANCELLED: NO_ACTIONS,
}

QUOTE_ACTIONS = {
    Quote.Status.DRAFT: frozenset({Action.EDIT, Action.SEND}),
    Quote.Status.SENT: frozenset({Action.MARK_ACCEPTED, Action.MARK_REJECTED}),
    Quote.Status.ACCEPTED: NO_ACTIONS,
    Quote.Status.REJECTED: NO_ACTIONS,
    Quote.EXPIRED: NO_ACTIONS,
}

# Actions that change the stored status, mapped to the model's FSM method
FSM_METHODS = {
    Action.SEND: "send",
    Action.CANCEL: "cancel",
    Action.MARK_ACCEPTED: "mark_accepted",
    Action.MARK_REJECTED: "mark_rejected",
}


def _action_table(doc) -> dict:
    if doc.kind == Invoice.kind:
        return INVOICE_ACTIONS
    if doc.kind == Quote.kind:
        return QUOTE_ACTIONS
    raise TypeError(f"Not a billing document: {doc!r}")


def effective_status(doc, *, today) -> str:
    """Stored status, or the derived late/expired status.

    A sent invoice whose due date is before `today` is "late"; a sent quote
    whose validity date is before `today` is "expired". Nothing is written
    back to the document.
    """
    if doc.kind == Invoice.kind:
        if doc.status == Invoice.Status.SENT and doc.due_date and today > doc.due_date:
            return Invoice.LATE
    elif doc.kind == Quote.kind:
        if doc.status == Quote.Status.SENT and doc.validity_date and today > doc.validity_date:
            return Quote.EXPIRED
    return doc.status


def is_terminal(doc, *, today) -> bool:
    return not allowed_actions(doc, today=today)


def allowed_actions(doc, *, today) -> frozenset:
    status = effective_status(doc, today=today)
    try:
        return _action_table(doc)[status]
    except KeyError:
        raise IllegalTransition(f"Unknown {doc.kind} status {status!r}.") from None


def can_apply(doc, action, *, today) -> bool:
    try:
        ensure_allowed(doc, action, today=today)
    except IllegalTransition:
        return False
    return True


def ensure_allowed(doc, action, *, today) -> Action:
    """Return the Action, or raise IllegalTransition if it is not legal now."""
    try:
        action = Action(action)
    except ValueError:
        raise IllegalTransition(f"Unknown action {action!r}.") from None

    if action not in allowed_actions(doc, today=today):
        status = effective_status(doc, today=today)
        raise IllegalTransition(f"Cannot {action.label.lower()} a {status} {doc.kind}.")
    return action


def apply_transition(doc, action, *, today, by=None):
    """Apply a user action to a document and return it.

    Status-changing actions run the model's FSM transition and save the
    document; `edit` and `add_payment` only check that the action is legal.
    Raises IllegalTransition otherwise.
    """
    action = ensure_allowed(doc, action, today=today)

    method_name = FSM_METHODS.get(action)
    if method_name is None:
        return doc

    method = getattr(doc, method_name)
    if not can_proceed(method):
        raise IllegalTransition(f"Cannot {action.label.lower()} a {doc.status} {doc.kind}.")

    previous = doc.status
    with transaction.atomic():
        method(by=by)
        doc.save()

    logger.info("%s %s: %s -> %s (%s)", doc.kind, doc.display_no, previous, doc.status, action.value)
    return doc
