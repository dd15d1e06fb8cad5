def test_public_imports() -> None:
    # A lightweight contract test: keep the most common imports stable.
    import vswfpy

    assert hasattr(vswfpy, "__version__")

    from vswfpy import (  # noqa: F401
        CoefficientSet,
        Ensemble,
        far_field,
        force,
        near_field,
        rotate,
        translate,
    )
