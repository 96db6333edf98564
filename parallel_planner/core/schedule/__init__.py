"""Layered scheduling and checkpoint insertion.

The scheduler only knows task completion; stability barriers are layered on
afterwards by the checkpoint inserter.
"""
