"""
Collaborative Annotation Engine
Pure, framework-free core used by the comment services and blueprints.

Submodules:
    - constants:   comment statuses and content kinds
    - anchoring:   re-locate a text snapshot inside a document tree
    - decorations: turn comments + resolved anchors into highlight ranges
    - hit_testing: map a pointer event to the comment that owns it
    - threads:     build the reply forest with transitive reply counts
"""
