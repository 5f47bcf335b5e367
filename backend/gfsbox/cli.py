"""Command-line entry point.

Usage:
    gfsbox sbox -p                      # prompt for a polynomial, print the S-box
    gfsbox sbox -pw --poly 11b          # print and write AESsbox.txt
    gfsbox sbox -pi --poly 11b          # print the raw inverse table
    gfsbox sbox -l                      # list irreducible polynomials
    gfsbox linear AESsbox.txt aes       # write aes.txt and aes.pgm
    gfsbox random --seed 7              # write randomsbox.txt
    gfsbox serve --port 8000            # HTTP API
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional

from .config import Settings, load_settings
from .errors import GFSBoxError, InvalidPolynomialError
from .exporters import (
    format_sbox_table,
    read_sbox,
    write_deviations_text,
    write_greymap,
    write_sbox,
)
from .linear_analysis import analyze
from .sbox_math import sbox_math
from .schemas import RunConfig

logger = logging.getLogger(__name__)


class UsageError(GFSBoxError):
    pass


def parse_poly(text: str) -> int:
    try:
        poly = int(text.strip(), 16)
    except ValueError as e:
        raise InvalidPolynomialError(text) from e
    if not 0x100 <= poly <= 0x1FF:
        raise InvalidPolynomialError(text)
    return poly


def format_poly_list(polys: List[int]) -> str:
    lines = []
    for i in range(0, len(polys), 4):
        lines.append("".join(f"0x{p:x}, " for p in polys[i:i + 4]))
    return "\n".join(lines) + "\n"


def run(
    config: RunConfig,
    settings: Settings,
    prompt: Optional[Callable[[str], str]] = None,
) -> int:
    """
    Derive, print and/or write an S-box as selected by config. When config.poly
    is None the polynomial is read from prompt; an empty answer selects
    settings.default_poly.
    """
    if config.list_polys:
        print(format_poly_list(sbox_math.list_irreducible_polys()), end="")
        return 0
    if not (config.print_sbox or config.write_sbox):
        if config.raw_inverse:
            raise UsageError("You must also specify p (print) or w (write)")
        raise UsageError("Specify -p (print), -w (write), or -i (inverse), or -l for irreducible polynomial list.")

    if config.poly is None:
        prompt = prompt or input
        try:
            answer = prompt("Enter hexadecimal representation of degree 8 polynomial: ")
        except EOFError as e:
            raise UsageError("No polynomial entered (end of input)") from e
        poly = parse_poly(answer) if answer.strip() else settings.default_poly
    else:
        poly = config.poly
        if not 0x100 <= poly <= 0x1FF:
            raise InvalidPolynomialError(poly)

    result = sbox_math.generate_sbox(poly, raw_inverse=config.raw_inverse)
    if not result.inverses.is_complete:
        print(
            f"warning: 0x{poly:x} is not irreducible, "
            f"{len(result.inverses.unresolved)} bytes have no inverse",
            file=sys.stderr,
        )

    if config.print_sbox:
        print(format_sbox_table(result.values), end="")
    if config.write_sbox:
        write_sbox(Path(settings.output_dir) / settings.sbox_filename, result.values)
    return 0


def run_linear(sbox_path: str, basename: str) -> int:
    sbox = read_sbox(sbox_path)
    logger.info("Analysing S-box from %s", sbox_path)
    analysis = analyze(sbox)
    write_deviations_text(basename, analysis.sorted_deviations)
    write_greymap(basename, analysis.sorted_deviations)
    print(f"maximum deviation: {analysis.max_deviation:g}")
    return 0


def run_random(settings: Settings, seed: Optional[int]) -> int:
    path = write_sbox(Path(settings.output_dir) / settings.random_sbox_filename, sbox_math.random_sbox(seed))
    print(f"Random S-box written to {path}")
    return 0


def serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("gfsbox.main:app", host=host, port=port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gfsbox",
        description="GF(2^8) S-box derivation and linear analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Usage:", 1)[1],
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_sbox = sub.add_parser("sbox", help="Derive an S-box from a degree 8 polynomial")
    p_sbox.add_argument("-p", dest="print_sbox", action="store_true", help="print the S-box")
    p_sbox.add_argument("-w", dest="write_sbox", action="store_true", help="write the S-box to a file")
    p_sbox.add_argument("-i", dest="raw_inverse", action="store_true",
                        help="use the inverses before the affine transformation")
    p_sbox.add_argument("-l", dest="list_polys", action="store_true",
                        help="list the irreducible polynomials and exit")
    p_sbox.add_argument("--poly", type=parse_poly, default=None,
                        help="polynomial in hex (e.g. 11b); prompted for when omitted")
    p_sbox.add_argument("--output-dir", default=None, help="directory for written files")

    sub.add_parser("irreducible", help="List irreducible polynomials of degree 8")

    p_lin = sub.add_parser("linear", help="Linear analysis of an S-box file")
    p_lin.add_argument("sbox_file", help="S-box text file (16x16 decimal values)")
    p_lin.add_argument("basename", help="output name; .txt and .pgm are appended")

    p_rand = sub.add_parser("random", help="Write a random S-box")
    p_rand.add_argument("--seed", type=int, default=None)
    p_rand.add_argument("--output-dir", default=None, help="directory for written files")

    p_serve = sub.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
        logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
        if getattr(args, "output_dir", None):
            settings = settings.model_copy(update={"output_dir": args.output_dir})

        if args.command == "sbox":
            config = RunConfig(
                poly=args.poly,
                print_sbox=args.print_sbox,
                write_sbox=args.write_sbox,
                raw_inverse=args.raw_inverse,
                list_polys=args.list_polys,
            )
            return run(config, settings)
        if args.command == "irreducible":
            return run(RunConfig(list_polys=True), settings)
        if args.command == "linear":
            return run_linear(args.sbox_file, args.basename)
        if args.command == "random":
            return run_random(settings, args.seed)
        return serve(args.host, args.port)
    except (GFSBoxError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
