from ideation_system.main import main

main()
