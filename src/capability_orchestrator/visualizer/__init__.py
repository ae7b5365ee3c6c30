"""Visualizer package - Rich terminal views for plans and results."""

from .plan_view import render_capabilities, render_classification, render_plan, render_result

__all__ = [
	"render_capabilities",
	"render_classification",
	"render_plan",
	"render_result",
]
