"""Modelos y validaciones del dominio.

Por qué:
- Aquí viven las estructuras puras y estrictas (Pydantic v2): pod, port-forward,
  resultados de comandos.
- El dominio no conoce subprocess ni la CLI: solo conceptos del problema.
"""
