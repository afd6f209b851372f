"""Command line front end for diskglob."""
