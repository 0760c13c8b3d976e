"""
Translation Orchestrator - Run/Job/Task translation work scheduling
===================================================================
This package schedules, executes and recovers translation work for a
multilingual content store:
1. Discovery seeds jobs for content lacking target languages
2. Runs batch jobs together and finalize once every job is done
3. Workers claim jobs atomically and translate them field by field
4. Recovery repairs jobs that stalled mid-flight

Version: 1.0.0
"""

__version__ = "1.0.0"

from translation_orchestrator.orchestrator import Orchestrator

__all__ = ["Orchestrator", "__version__"]
