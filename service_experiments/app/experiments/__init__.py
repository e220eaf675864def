"""
Experiments package.

Defines the experiment model, the stateless variant allocator, and the
in-memory registry the service assigns from.

Modules of interest:
- models: Experiment, Exposure and API request/response models.
- allocator: SHA-256 bucket allocator over weighted variants.
- registry: In-memory experiment store indexed by id and key.
"""
