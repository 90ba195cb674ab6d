# CUI // SP-PROPIN
"""RFX context services for AI drafting.

Modules:
    context_prioritizer - rank solicitation documents (RFP, amendments, Q&A)
    context_builder     - render ranked reference proposals into a prompt block
"""
