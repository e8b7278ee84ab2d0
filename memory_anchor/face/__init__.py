"""Face registry building blocks (types/extractor/registry/matcher/enrollment).

The extractor is an interface; `insightface_extractor` is imported explicitly by
callers that need the real model so the rest of the package stays importable
without model weights.
"""
