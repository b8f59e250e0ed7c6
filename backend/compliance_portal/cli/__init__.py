"""Administrative command line entry points."""
