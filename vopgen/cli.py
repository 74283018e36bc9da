import argparse
import json
import os
import sys
import time

from .compiler import generate_routines
from .config.config import STAGE_MAP
from .exceptions import VopgenError
from .registry import OperationRegistry
from .utils import CompilerArtifactEncoder, TerminalColors


def main(argv=None):
    start_time = time.perf_counter()

    # Dynamically generate help text for the --compile argument
    stage_help_text = "Run up to a specific stage and save the intermediate artifact. "
    for key, (name, desc) in STAGE_MAP.items():
        stage_help_text += f"'{key}' for {desc}. "
    stage_help_text += "Omitting this flag runs the full pipeline and writes the routine set."

    parser = argparse.ArgumentParser(description="Expand the operation catalog into type- and addressing-mode-specialized routines.")
    parser.add_argument(
        "-o",
        "--output",
        dest="output_file",
        help="The path to the output .json file. Defaults to 'vopgen_routines.json'.",
    )
    parser.add_argument("-c", "--compile", type=str, choices=STAGE_MAP.keys(), help=stage_help_text)
    parser.add_argument(
        "--operation",
        dest="operations",
        action="append",
        default=[],
        metavar="NAME",
        help="Only generate the named operation. May be given more than once.",
    )
    parser.add_argument("--list", action="store_true", help="List the operation catalog and exit.")

    args = parser.parse_args(argv)

    try:
        registry = OperationRegistry.default()

        # --- Catalog Listing ---
        if args.list:
            for declaration in registry.declarations():
                resolved = registry.resolved(declaration.name)
                print(f"{declaration.name:<30} {declaration.category:<10} {', '.join(resolved.capabilities)}")
            return

        scope = ", ".join(args.operations) if args.operations else "full catalog"
        print(f"--- Generating routines for {scope} ---")

        raw_output_path = args.output_file or "vopgen_routines.json"
        output_file_path = os.path.abspath(raw_output_path)
        output_base = os.path.splitext(output_file_path)[0]

        # --- Determine Pipeline Stop Point ---
        stop_after_stage = None
        if args.compile:
            stop_after_stage, stage_desc = STAGE_MAP[args.compile]

        # The pipeline saves the artifact of the stop stage itself
        dump_stages = [stop_after_stage] if stop_after_stage else []

        final_product = generate_routines(
            registry,
            operations=args.operations,
            output_base=output_base,
            dump_stages=dump_stages,
            stop_after_stage=stop_after_stage,
        )

        # --- Handle Output ---
        if stop_after_stage:
            print(f"\n{TerminalColors.GREEN}--- Generation to stage '{args.compile} ({stage_desc})' successful ---{TerminalColors.RESET}")
        else:
            os.makedirs(os.path.dirname(output_file_path), exist_ok=True)
            with open(output_file_path, "w", encoding="utf-8") as f:
                json.dump(final_product, f, indent=2, cls=CompilerArtifactEncoder)

            print(f"\n{TerminalColors.GREEN}--- Generation Successful ---{TerminalColors.RESET}")
            print(f"{len(final_product)} routines written to {output_file_path}")

    # --- Error Handling ---
    except VopgenError as e:
        print(
            f"\n{TerminalColors.RED}--- GENERATION ERROR ---\n{e}{TerminalColors.RESET}",
            file=sys.stderr,
        )
        sys.exit(1)
    except Exception as e:
        print(
            f"\n{TerminalColors.RED}--- UNEXPECTED GENERATOR ERROR ---{TerminalColors.RESET}",
            file=sys.stderr,
        )
        print("This may be a bug in the generator. Please report it.", file=sys.stderr)
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)

    finally:
        # --- Execution Time ---
        end_time = time.perf_counter()
        duration = end_time - start_time
        print(f"\n{TerminalColors.CYAN}--- Total Execution Time: {duration:.4f} seconds ---{TerminalColors.RESET}")


if __name__ == "__main__":
    main()
