"""Units and the duty roster: who is on duty in each department."""
