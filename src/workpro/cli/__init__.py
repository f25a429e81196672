"""WorkPro CLI -- inspect and exercise the resilience core from a terminal."""
