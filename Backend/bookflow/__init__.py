"""BookFlow booking backend."""
