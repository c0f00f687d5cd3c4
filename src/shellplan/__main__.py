from shellplan.shell import main

main()
