from bombuscv.cli import main

main()
