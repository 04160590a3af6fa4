"""Offer admission policy."""

from shh_node.policy.admission import AdmissionPolicy

__all__ = ["AdmissionPolicy"]
