"""Write documents, card images and batch summaries to disk."""

import json
from pathlib import Path

from xcard.models.card import RenderedCard
from xcard.models.profile import Profile
from xcard.models.result import BatchResult, DocumentResult


def save_pdf(pdf: bytes, filepath: str | Path) -> Path:
    """
    Save PDF bytes to a file.

    Args:
        pdf: Serialized document
        filepath: Output file path; parent directories are created

    Returns:
        Path to saved file
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(pdf)
    return path


def save_document(result: DocumentResult, output_dir: str | Path = ".") -> Path:
    """Save a built document under its generated filename."""
    return save_pdf(result.pdf, Path(output_dir) / result.filename)


def save_card_images(
    card: RenderedCard,
    output_dir: str | Path,
    filename_template: str = "{username}-{side}.png",
) -> list[Path]:
    """
    Save a card's front (and back, if rendered) as PNG files.

    Args:
        card: Rendered card
        output_dir: Directory for output files
        filename_template: Template with {username} and {side} placeholders

    Returns:
        List of paths to saved files
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    sides = [("front", card.front)]
    if card.back is not None:
        sides.append(("back", card.back))

    saved = []
    for side, data in sides:
        filepath = output_path / filename_template.format(username=card.username, side=side)
        filepath.write_bytes(data)
        saved.append(filepath)
    return saved


def batch_summary(result: BatchResult) -> dict:
    """Export-friendly summary: counts, rendered handles and skipped inputs."""
    summary = result.summary()
    summary["usernames"] = [card.username for card in result.succeeded]
    summary["placeholders"] = {
        card.username: card.placeholders for card in result.succeeded if card.placeholders
    }
    summary["duration_ms"] = round(result.duration_ms, 1)
    return summary


def save_batch_summary(result: BatchResult, filepath: str | Path, indent: int = 2) -> Path:
    """Save batch_summary() as JSON."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(batch_summary(result), indent=indent), encoding="utf-8")
    return path


def save_profile_json(profile: Profile, filepath: str | Path, indent: int = 2) -> Path:
    """Save an assembled profile as JSON."""
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(profile.model_dump_json(indent=indent), encoding="utf-8")
    return path


def load_profile_json(filepath: str | Path) -> Profile:
    """Load a Profile saved by save_profile_json."""
    return Profile.model_validate_json(Path(filepath).read_text(encoding="utf-8"))
