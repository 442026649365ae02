"""
ROUND ROBIN ROTATION
====================

Pure selection over an ordered list of eligible sellers.

There is no stored "next index": the next seller is derived from whoever
received the facility's most recent lead. That keeps the rotation
consistent across restarts and pool edits, at the cost of a fairness
window of exactly one pass over the *current* eligible list. A seller
that is disabled and re-enabled may therefore be skipped or repeated once,
depending on where the history points. This is accepted behaviour.
"""

from typing import Optional, Sequence


def pick_next_seller(
    eligible: Sequence[int],
    last_assignee_id: Optional[int],
    exclude_id: Optional[int] = None,
) -> Optional[int]:
    """
    Returns the seller id that should receive the next lead.

    Args:
        eligible: enabled seller ids, ordered by sort position
        last_assignee_id: assignee of the facility's most recently created
            lead that has one (None if no lead was ever assigned)
        exclude_id: seller that must not be chosen (the one who just
            declined or timed out)

    Returns:
        The chosen seller id, or None when nobody is eligible.
    """
    if not eligible:
        return None

    try:
        start = (eligible.index(last_assignee_id) + 1) % len(eligible)
    except ValueError:
        # No history, or the previous assignee left the pool: restart at the head
        start = 0

    for offset in range(len(eligible)):
        candidate = eligible[(start + offset) % len(eligible)]
        if candidate != exclude_id:
            return candidate

    return None
