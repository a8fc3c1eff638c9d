"""Avatar Journey - a virtual travel narrative driven by a generative backend."""
