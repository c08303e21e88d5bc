"""Activation reports (JSON and markdown)."""

from reporting.report import ActivationReport, outcome_summary

__all__ = ['ActivationReport', 'outcome_summary']
