from repogate.cli import main

main()
