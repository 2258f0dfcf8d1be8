"""Planning data model, deterministic calculators and the agent pipeline."""
