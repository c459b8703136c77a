from dataclasses import dataclass

from .models import Player


@dataclass(frozen=True)
class SubstitutionCheck:
    ok: bool
    reason: str = ""
    noop: bool = False


def is_true_substitution(a: Player, b: Player) -> bool:
    return a.id != b.id and a.is_starter != b.is_starter


def validate_substitution(a: Player, b: Player) -> SubstitutionCheck:
    """Decide whether *a* and *b* may swap places.

    Dropping a player on itself is a no-op. Swapping two starters or two
    bench players is a reorder and always allowed. A starter/bench exchange
    is only allowed between players with the same canonical position, so an
    "Attacker" may replace a "Forward".
    """
    if a.id == b.id:
        return SubstitutionCheck(ok=True, noop=True)
    if not is_true_substitution(a, b):
        return SubstitutionCheck(ok=True)
    pos_a = a.canonical_position
    pos_b = b.canonical_position
    if pos_a == pos_b:
        return SubstitutionCheck(ok=True)
    return SubstitutionCheck(ok=False, reason=f"{pos_a.value} vs {pos_b.value}")


def rejection_message(a: Player, b: Player, reason: str) -> str:
    return (
        f"Cannot substitute {a.name} ({a.canonical_position.value}) with "
        f"{b.name} ({b.canonical_position.value}): players must have the same position ({reason})."
    )
