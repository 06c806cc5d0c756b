"""
Guarded calls into the value-transfer collaborator.

A transfer that returns False and a transfer that raises are the same
failure to the kernel: both surface as TransferFailedError, chained to the
original exception when there is one.  A zero amount never reaches the
collaborator.
"""

from yield_kernel.domain.collaborators import ValueTransfer
from yield_kernel.exceptions import TransferFailedError
from yield_kernel.logging_config import get_logger

logger = get_logger("services.transfers")


def push(token: ValueTransfer, sender: str, recipient: str, amount: int) -> None:
    """Move ``amount`` (WAD) held by ``sender`` to ``recipient``."""
    if amount == 0:
        return
    try:
        ok = token.transfer(sender, recipient, amount)
    except Exception as exc:
        logger.warning(
            "transfer_raised",
            extra={"sender": sender, "recipient": recipient, "amount_wad": amount},
        )
        raise TransferFailedError(sender, recipient, amount, reason=str(exc)) from exc
    if not ok:
        logger.warning(
            "transfer_rejected",
            extra={"sender": sender, "recipient": recipient, "amount_wad": amount},
        )
        raise TransferFailedError(sender, recipient, amount, reason="transfer returned false")


def pull(token: ValueTransfer, spender: str, owner: str, recipient: str, amount: int) -> None:
    """Move ``amount`` (WAD) of ``owner``'s tokens, approved to ``spender``, to ``recipient``."""
    if amount == 0:
        return
    try:
        ok = token.transfer_from(spender, owner, recipient, amount)
    except Exception as exc:
        logger.warning(
            "transfer_from_raised",
            extra={"owner": owner, "recipient": recipient, "amount_wad": amount},
        )
        raise TransferFailedError(owner, recipient, amount, reason=str(exc)) from exc
    if not ok:
        logger.warning(
            "transfer_from_rejected",
            extra={"owner": owner, "recipient": recipient, "amount_wad": amount},
        )
        raise TransferFailedError(owner, recipient, amount, reason="transfer_from returned false")
