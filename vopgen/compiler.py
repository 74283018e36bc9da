import json
import os
from typing import Any, Dict, List, Optional

from .capabilities.composition import ResolvedDefaults
from .exceptions import VopgenError
from .expansion import Binding, expand
from .registry import OperationRegistry
from .synthesis.synthesizer import CodeSynthesizer, SpecializedRoutine
from .utils import CompilerArtifactEncoder


class GenerationPipeline:
    """
    Orchestrates generation from the operation catalog to the final routine
    set. Each stage's artifact is kept and handed to the next stage.
    """

    def __init__(
        self,
        registry: OperationRegistry,
        output_base: Optional[str] = None,
        dump_stages: Optional[List[str]] = None,
        stop_after_stage: Optional[str] = None,
    ):
        self.registry = registry
        self.output_base = os.path.abspath(output_base) if output_base else "vopgen_output"
        self.dump_stages = list(dump_stages or [])
        self.stop_after_stage = stop_after_stage
        self.artifacts: Dict[str, Any] = {}
        self.results: List[Any] = []

    def run(self) -> Any:
        try:
            # --- Stage 1: Declarations ---
            self._run_stage("declarations", lambda: {d.name: d for d in self.registry.declarations()})
            if self.stop_after_stage == "declarations":
                return self.results[-1]

            # --- Stage 2: Capability Composition ---
            # Composition already ran at registration; this stage collects the records.
            self._run_stage("resolved", lambda names: {name: self.registry.resolved(name) for name in names}, list(self.results[-1]))
            if self.stop_after_stage == "resolved":
                return self.results[-1]

            # --- Stage 3: Expansion ---
            self._run_stage("bindings", _expand_all, self.results[-1])
            if self.stop_after_stage == "bindings":
                return self.results[-1]

            # --- Stage 4: Synthesis ---
            self._run_stage("routines", _synthesize_all, self.artifacts["resolved"], self.results[-1])
            return self.results[-1]

        except VopgenError as e:
            raise e
        except Exception as e:
            import traceback

            traceback.print_exc()
            raise Exception(f"An unexpected internal error occurred: {e}") from e

    def _run_stage(self, name: str, func, *args, **kwargs) -> Any:
        """Runs a single function as a stage, storing and returning its result."""
        result = func(*args, **kwargs)
        self.artifacts[name] = result
        self.results.append(result)
        if name in self.dump_stages:
            self.save_artifact(name, result)
        return result

    def save_artifact(self, name: str, data: Any):
        """Saves a stage artifact to <base>.<stage>.json."""
        output_path = f"{self.output_base}.{name}.json"

        print(f"--- Saving artifact '{name}' to {output_path} ---")

        try:
            with open(output_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=False, cls=CompilerArtifactEncoder)
        except OSError as e:
            print(f"Error: Could not save artifact '{name}': {e}")


def _expand_all(resolved: Dict[str, ResolvedDefaults]) -> Dict[str, List[Binding]]:
    return {name: expand(record) for name, record in resolved.items()}


def _synthesize_all(resolved: Dict[str, ResolvedDefaults], bindings: Dict[str, List[Binding]]) -> Dict[str, SpecializedRoutine]:
    routines: Dict[str, SpecializedRoutine] = {}
    for name, record in resolved.items():
        for routine in CodeSynthesizer(record).synthesize_all(bindings[name]):
            routines[routine.name] = routine
    return routines


def generate_routines(
    registry: Optional[OperationRegistry] = None,
    operations: Optional[List[str]] = None,
    output_base: Optional[str] = None,
    dump_stages: Optional[List[str]] = None,
    stop_after_stage: Optional[str] = None,
):
    """High-level entry point for the generation pipeline."""
    registry = (registry or OperationRegistry.default()).select(operations)
    pipeline = GenerationPipeline(registry, output_base, dump_stages, stop_after_stage)
    return pipeline.run()
