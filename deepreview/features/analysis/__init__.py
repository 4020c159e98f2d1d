"""
Analysis feature module.

Sends a journal entry to text-generation providers in priority order and
returns a narrative analysis, with a local template when no provider is set up.
"""

from deepreview.features.analysis.gateway import (
    AnalysisGateway,
    AnalysisPhase,
    GatewayState,
    NetworkStatus,
    build_default_providers,
)
from deepreview.features.analysis.local import generate_local_analysis
from deepreview.features.analysis.prompts import build_analysis_prompt

__all__ = [
    "AnalysisGateway",
    "AnalysisPhase",
    "GatewayState",
    "NetworkStatus",
    "build_default_providers",
    "generate_local_analysis",
    "build_analysis_prompt",
]
