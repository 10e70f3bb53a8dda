"""Discovery of new complexes: locality rotation, research prompts and fuzzy de-duplication."""
