"""Readers and writers for S-boxes and sorted deviation matrices.

S-box text format: 256 decimal values, each followed by a tab, with a newline
after every 16th value. Deviation exports have one line per sorted rank
(255 down to 1) and one column per output mask (1 to 255).
"""
import io
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from PIL import Image

from .errors import IncompleteSBoxError, InvalidSBoxError, OutputWriteError
from .linear_analysis import SBOX_SIZE, validate_sbox

logger = logging.getLogger(__name__)

# Greymap samples are floor(deviation * 128); the declared maximum of 21 makes
# everything at or above a deviation of 21/128 render white.
GREYMAP_SCALE = 128
GREYMAP_MAXVAL = 21
GREYMAP_WIDTH = 255
GREYMAP_HEIGHT = 256


def _write_text(path, text: str) -> Path:
    path = Path(path)
    try:
        path.write_text(text)
    except OSError as e:
        raise OutputWriteError(path, e.strerror or str(e)) from e
    logger.info("Wrote %s", path)
    return path


# --- S-BOX ---

def format_sbox(sbox: Sequence[int]) -> str:
    lines = []
    for row in range(0, SBOX_SIZE, 16):
        lines.append("".join(f"{v}\t" for v in sbox[row:row + 16]))
    return "\n".join(lines) + "\n"


def parse_sbox(text: str) -> List[int]:
    tokens = text.split()
    if len(tokens) < SBOX_SIZE:
        raise IncompleteSBoxError(len(tokens))
    try:
        values = [int(tok) for tok in tokens[:SBOX_SIZE]]
    except ValueError as e:
        raise InvalidSBoxError(f"S-box file holds a non-integer value: {e}") from e
    validate_sbox(values)
    return values


def write_sbox(path, sbox: Sequence[int]) -> Path:
    validate_sbox(sbox)
    return _write_text(path, format_sbox(sbox))


def read_sbox(path) -> List[int]:
    with open(path, "r") as f:
        return parse_sbox(f.read())


def format_sbox_table(sbox: Sequence[int]) -> str:
    """Hex grid for the console: column header, rule, then one row per high nibble"""
    header = "  \t" + "\t".join(f"{c:02x}" for c in range(16))
    rule = "    " + "-" * 127
    lines = [header, rule]
    for row in range(0, SBOX_SIZE, 16):
        cells = "".join(f"{v:02x}\t" for v in sbox[row:row + 16])
        lines.append(f"{row:02x}  |\t{cells}")
    return "\n".join(lines) + "\n"


# --- DEVIATIONS ---

def _export_rows(sorted_deviations: np.ndarray) -> Iterable[np.ndarray]:
    for rank in range(SBOX_SIZE - 1, 0, -1):
        yield sorted_deviations[1:, rank]


def format_deviations_text(sorted_deviations: np.ndarray) -> str:
    lines = []
    for row in _export_rows(sorted_deviations):
        lines.append("".join(f"{v:g}\t" for v in row))
    return "\n".join(lines) + "\n"


def format_greymap(sorted_deviations: np.ndarray) -> str:
    lines = [f"P2\n{GREYMAP_WIDTH} {GREYMAP_HEIGHT}\n{GREYMAP_MAXVAL}"]
    for row in _export_rows(sorted_deviations):
        lines.append("".join(f"{int(v * GREYMAP_SCALE)}\t" for v in row))
    return "\n".join(lines) + "\n"


def greymap_samples(sorted_deviations: np.ndarray) -> np.ndarray:
    rows = np.stack(list(_export_rows(sorted_deviations)))
    return np.floor(rows * GREYMAP_SCALE).astype(np.int64)


def write_deviations_text(basename, sorted_deviations: np.ndarray) -> Path:
    return _write_text(f"{basename}.txt", format_deviations_text(sorted_deviations))


def write_greymap(basename, sorted_deviations: np.ndarray) -> Path:
    return _write_text(f"{basename}.pgm", format_greymap(sorted_deviations))


def render_greymap_png(sorted_deviations: np.ndarray) -> bytes:
    """8-bit PNG preview of the greymap, stretched so GREYMAP_MAXVAL maps to 255"""
    samples = greymap_samples(sorted_deviations)
    pixels = np.clip(samples * 255 // GREYMAP_MAXVAL, 0, 255).astype(np.uint8)
    img = Image.fromarray(pixels)
    output = io.BytesIO()
    img.save(output, format="PNG")
    return output.getvalue()


# --- EXCEL ---

def export_excel(sbox: Sequence[int], summary: Optional[Dict[str, object]] = None) -> bytes:
    df_sbox = pd.DataFrame([list(sbox[i:i + 16]) for i in range(0, SBOX_SIZE, 16)])
    # Hex formatting
    df_sbox = df_sbox.map(lambda x: f"{x:02X}")

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        df_sbox.to_excel(writer, sheet_name='S-Box', header=False, index=False)
        if summary:
            df_summary = pd.DataFrame(list(summary.items()), columns=['Metric', 'Value'])
            df_summary.to_excel(writer, sheet_name='Summary', index=False)
    return output.getvalue()
