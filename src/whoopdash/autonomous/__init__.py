"""In-process scheduling of the fetch cycle."""
