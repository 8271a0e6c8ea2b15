"""Interfaces/abstracciones del Core.

Por qué:
- Define el contrato (Protocol) del ejecutor de binarios externos.
- Los wrappers de podman/kind/kubectl dependen de él, no de `subprocess`.
"""
