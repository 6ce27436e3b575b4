from mixpkg.interface.cli import main

main()
