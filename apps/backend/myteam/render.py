from typing import List

from .positions import CanonicalPosition
from .squad import Squad

# Front line first, the way the pitch is drawn.
_PITCH_ORDER = (
    CanonicalPosition.FORWARD,
    CanonicalPosition.MIDFIELDER,
    CanonicalPosition.DEFENDER,
    CanonicalPosition.GOALKEEPER,
)


def render_squad_md(squad: Squad, title: str = "") -> str:
    """Render the squad as Markdown: one row per pitch line, then the bench.

    Players playing out of their own line are tagged with their position.
    """
    lines: List[str] = [f"# {title or 'My Team'} ({squad.formation})"]
    lines.append("")
    lines.append("| Line | Players |")
    lines.append("|---|:---|")
    pitch = squad.lines()
    for pos in _PITCH_ORDER:
        cells = []
        for player in pitch.get(pos, []):
            cell = player.name + (" (C)" if player.is_captain else "")
            if player.canonical_position != pos:
                cell += f" [{player.canonical_position.short}]"
            cells.append(cell)
        lines.append(f"| {pos.short} | {', '.join(cells) or '-'} |")
    lines.append("")
    starters = len(squad.starters())
    if not squad.is_complete():
        lines.append(f"> Incomplete squad: {starters} starters.")
        lines.append("")
    lines.append("## Bench")
    bench = squad.bench()
    if not bench:
        lines.append("- (empty)")
    for player in bench:
        captain = " (C)" if player.is_captain else ""
        lines.append(f"- {player.name}{captain} ({player.canonical_position.short}, {player.team})")
    lines.append("")
    return "\n".join(lines)
