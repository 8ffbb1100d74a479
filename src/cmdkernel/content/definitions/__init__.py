"""Declarative command definitions, one JSON file per tool."""
