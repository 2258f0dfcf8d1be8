"""Generation gateway, backends and response sanitizing."""
