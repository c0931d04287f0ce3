from ava.friction.detectors import build_default_registry
from ava.friction.registry import WILDCARD, DetectionInput, Detector, DetectorRegistry

__all__ = ["WILDCARD", "DetectionInput", "Detector", "DetectorRegistry", "build_default_registry"]
