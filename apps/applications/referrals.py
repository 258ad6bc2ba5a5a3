"""Resolve channel codes to agents and attribute applications to them."""
import logging

from apps.accounts.models import User

logger = logging.getLogger(__name__)


def resolve_referrer(channel_code):
    """Return the active agent owning channel_code, or None.

    An unknown code is not an error: the submission simply goes ahead
    without attribution.
    """
    code = (channel_code or "").strip()
    if not code:
        return None
    agent = User.objects.active_agents().filter(channel_code=code).first()
    if agent is None:
        logger.info("Channel code %r did not resolve to an agent", code)
    return agent


def attribute_referral(application, trial, channel_code):
    """Fill the referral fields of an unsaved application.

    The trial's current referral fee is copied onto the application whether
    or not the code resolves; later edits to the trial never touch it.
    Returns the agent, so the caller can count the referral once the row
    is saved.
    """
    application.channel_code = (channel_code or "").strip()[:20]
    application.referral_fee_amount = trial.referral_fee or 0
    agent = resolve_referrer(channel_code)
    application.referrer = agent
    return agent
