"""Response schemas shared by the API."""
