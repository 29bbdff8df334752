"""
Exporters serializing checkpoints.
"""
