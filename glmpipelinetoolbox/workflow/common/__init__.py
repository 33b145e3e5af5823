"""Building blocks shared by every GLM software backend."""
