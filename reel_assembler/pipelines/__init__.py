"""Pipeline orchestrators for Reel Assembler."""

from reel_assembler.pipelines.assembly_orchestrator import AssemblyOrchestrator
from reel_assembler.pipelines.run_assembly import main

__all__ = ["AssemblyOrchestrator", "main"]
