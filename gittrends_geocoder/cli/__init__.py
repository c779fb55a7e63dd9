# =============================================================================
# gittrends_geocoder/cli -- Command-line entry points
# =============================================================================
#
# Two commands, both sharing the pipeline assembly in ``main.py``:
#
#   serve   Run the HTTP API under uvicorn.
#   search  Geocode one or more queries from the shell and print the
#           results, as text or as JSON.
#
# Usage:
#     python -m gittrends_geocoder.cli serve --port 3000
#     python -m gittrends_geocoder.cli search "Belo Horizonte, Brazil" --json
#
# Flags override the matching environment variables (see .env.example).
# =============================================================================

"""Command-line interface for the geocoder service."""
