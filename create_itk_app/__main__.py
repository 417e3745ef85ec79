"""Allow ``python -m create_itk_app``."""

from create_itk_app.pipeline import main

main()
